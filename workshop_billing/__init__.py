# workshop_billing/__init__.py
