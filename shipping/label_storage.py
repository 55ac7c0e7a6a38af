import os
import re
import logging

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r'[^A-Za-z0-9_.-]')


class LabelDirectory:
    """Saves downloaded shipping documents as `<order_sn>.pdf` under one directory."""

    def __init__(self, labels_dir):
        self.labels_dir = labels_dir

    def filename_for(self, order_sn):
        return f"{_UNSAFE.sub('_', str(order_sn))}.pdf"

    def save(self, order_sn, content):
        """Writes the document and returns its path, which is used as the ledger's label reference."""
        os.makedirs(self.labels_dir, exist_ok=True)
        label_filepath = os.path.abspath(os.path.join(self.labels_dir, self.filename_for(order_sn)))
        with open(label_filepath, 'wb') as f:
            f.write(content)
        logger.info(f"Saved shipping label to {label_filepath}")
        return label_filepath
