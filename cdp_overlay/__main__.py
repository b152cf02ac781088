import sys

from cdp_overlay.main import main

sys.exit(main())
