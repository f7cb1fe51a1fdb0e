collect_ignore = ["setup.py"]

pytest_plugins = ['notifyserv.fixtures']
