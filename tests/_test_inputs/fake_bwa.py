"""Stand-in for `bwa mem`: swallows stdin and prints a fixed paired-end SAM.

The read group passed with -R is echoed into the header the way bwa does it.
"""

import sys

RECORDS = [
    # pair 1: both mates inside region 1:91-120 / 1:121-150
    "pairA\t99\t1\t100\t60\t20M\t=\t125\t45\tACGTACGTACGTACGTACGT\tIIIIIIIIIIIIIIIIIIII",
    "pairA\t147\t1\t125\t60\t20M\t=\t100\t-45\tACGTACGTACGTACGTACGT\tIIIIIIIIIIIIIIIIIIII",
    # pair 2: on contig 2, outside every region
    "pairB\t99\t2\t10\t60\t20M\t=\t40\t50\tACGTACGTACGTACGTACGT\tIIIIIIIIIIIIIIIIIIII",
    "pairB\t147\t2\t40\t60\t20M\t=\t10\t-50\tACGTACGTACGTACGTACGT\tIIIIIIIIIIIIIIIIIIII",
]


def main() -> int:
    args = sys.argv[1:]
    read_group = args[args.index("-R") + 1].replace("\\t", "\t")
    sys.stdin.buffer.read()
    sys.stderr.write("[M::fake_bwa] processed 4 reads\n")
    out = ["@SQ\tSN:1\tLN:300", "@SQ\tSN:2\tLN:300", read_group, "@PG\tID:bwa\tPN:bwa\tVN:0.7.12-r1039"]
    out += [f"{r}\tRG:Z:{read_group.split(chr(9))[1][3:]}" for r in RECORDS]
    sys.stdout.write("\n".join(out) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
