# edu_erp/tests/api/__init__.py
