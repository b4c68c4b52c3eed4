import argparse
import logging

from fintrack.cli import FinanceTrackerCLI
from fintrack.storage import RecordStore, DEFAULT_STORE


def main(argv=None):
    parser = argparse.ArgumentParser(prog="fintrack", description="Personal finance tracker")
    parser.add_argument("--store", default=DEFAULT_STORE, help="name of the store under saves/")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    FinanceTrackerCLI(RecordStore(args.store)).cmdloop()


if __name__ == "__main__":
    main()
