# edu_erp/tests/unit/__init__.py
