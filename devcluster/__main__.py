import sys

from devcluster.main import main

if __name__ == "__main__":
    sys.exit(main())
