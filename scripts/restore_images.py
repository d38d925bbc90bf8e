"""
Restore LNReader images from an exported Backup_pages.db.
Run from the folder that holds the database; images/ and log.txt are created there.
"""

from pathlib import Path
import sys

# Add src to path to allow running without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from image_retriever.cli import main

if __name__ == "__main__":
    sys.exit(main())
