import sys

from usersync.application import main

if __name__ == "__main__":
    sys.exit(main())
