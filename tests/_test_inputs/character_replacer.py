"""Replace every occurrence of one string with another while copying stdin to stdout."""

import sys


def main() -> int:
    old, new = sys.argv[1], sys.argv[2]
    data = sys.stdin.buffer.read()
    sys.stdout.buffer.write(data.replace(old.encode(), new.encode()))
    sys.stdout.flush()
    sys.stderr.write(f"replaced {old!r} with {new!r}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
