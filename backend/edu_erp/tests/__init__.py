# edu_erp/tests/__init__.py
