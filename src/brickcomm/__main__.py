import sys

from brickcomm.main import main

sys.exit(main())
