import sys

from blobkeeper.cli.main import main

sys.exit(main())
