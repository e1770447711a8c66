import argparse

from pyvfat import ChannelOccupancy, GemDataFile


def main():
    parser = argparse.ArgumentParser(description="Print per-channel occupancy of a GEM data file")
    parser.add_argument("filename", help="GEM data file")
    parser.add_argument("--format", default="geb", choices=["geb", "amc", "scan"])
    parser.add_argument("--max-events", type=int, default=None, help="Stop after this many events")
    args = parser.parse_args()

    stats = ChannelOccupancy()
    with GemDataFile(args.filename, args.format) as data:
        end = data.run(stats, args.max_events)

    print(f"Events: {stats.events}, VFAT frames: {stats.vfats}, end of stream: {end.reason}")
    if end.error is not None:
        print(f"  {end.error}")

    occupancy = stats.occupancy()
    for start in range(0, len(occupancy), 16):
        row = " ".join(f"{x:5.3f}" for x in occupancy[start:start + 16])
        print(f"{start:>3}: {row}")


if __name__ == "__main__":
    main()
