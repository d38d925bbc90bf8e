import sys

from image_retriever.cli import main

sys.exit(main())
