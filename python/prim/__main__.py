import sys

from prim.main import main

sys.exit(main())
