# edu_erp/tests/tasks/__init__.py
