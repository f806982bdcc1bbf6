from kernel_updater.main import main as main

__version__ = "0.1.0"
