import os
import sys
import logging
from datetime import datetime

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(log_dir, name='order_sync', level=logging.INFO):
    """Sets up a dated log file plus console output for one workflow run."""
    os.makedirs(log_dir, exist_ok=True)
    log_filename = datetime.now().strftime(f"{name}_%Y-%m-%d.log")
    log_path = os.path.join(log_dir, log_filename)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_path, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    return logging.getLogger()
