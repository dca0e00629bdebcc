# edu_erp/tests/integration/__init__.py
