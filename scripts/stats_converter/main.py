"""Pipeline orchestration: Converter and the main entry point."""

import os
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path

from stats_converter.constants import (
    DEFAULT_INPUT_DIR, DEFAULT_OUTPUT_DIR, DICTIONARY_DIR, EDITIONS, KEEP_GENERATIONS,
    LEADERBOARDS_DIR, PLAYERS_DIR,
)
from stats_converter.dictionary import process_dictionary_and_names
from stats_converter.errors import DataError, DataIOError, MissingFileError, ValidationError
from stats_converter.games import process_game_metadata
from stats_converter.leaderboards import process_leaderboards
from stats_converter.metadata import export_id_map
from stats_converter.parallel import summarize_skips
from stats_converter.players import process_players
from stats_converter.verify import verify_output


# ─── Directory Helpers ──────────────────────────────────────────

def validate_directory(path, description):
    if not path.exists():
        raise MissingFileError(f"{description} directory does not exist: {path}")
    if not path.is_dir():
        raise ValidationError(f"{description} is not a directory: {path}")


def validate_different_paths(in_path, out_path):
    """Refuse to convert a tree onto itself."""
    if in_path.resolve() == out_path.resolve():
        raise ValidationError(
            f"Input and output directories must be different: {in_path.resolve()}"
        )


def setup_staging_directory(staging_dir):
    """Wipe and recreate the staging directory."""
    try:
        if staging_dir.exists():
            shutil.rmtree(staging_dir)
        staging_dir.mkdir(parents=True)
    except OSError as e:
        raise DataIOError(f"Cannot prepare staging directory {staging_dir}: {e}") from e


def _generation_dirs(output_dir):
    return sorted(output_dir.parent.glob(f".{output_dir.name}.gen-*"))


def promote_output(staging_dir, output_dir, keep_generations=KEEP_GENERATIONS):
    """Publish staging as the new output generation.

    Staging is moved to a fresh generation directory beside the output, then a
    symlink at output_dir is swapped to it with one rename, so readers see
    either the old tree or the new one. Returns the generation directory.
    """
    output_dir = Path(output_dir)
    parent = output_dir.parent
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    generation = parent / f".{output_dir.name}.gen-{stamp}"
    link_tmp = parent / f".{output_dir.name}.link-tmp"

    try:
        parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(staging_dir), str(generation))

        if link_tmp.is_symlink() or link_tmp.exists():
            link_tmp.unlink()
        os.symlink(generation.name, link_tmp, target_is_directory=True)

        # a real directory left by an older layout cannot be swapped atomically
        if output_dir.is_dir() and not output_dir.is_symlink():
            shutil.rmtree(output_dir)
        os.replace(link_tmp, output_dir)

        for old in _generation_dirs(output_dir)[:-max(1, keep_generations)]:
            if old != generation:
                shutil.rmtree(old)
    except OSError as e:
        raise DataIOError(f"Failed to publish {staging_dir} to {output_dir}: {e}") from e

    return generation


# ─── Converter ──────────────────────────────────────────────────

class Converter:
    """Runs every edition into staging, then promotes staging to output."""

    def __init__(self, input_dir, output_dir, staging_dir=None, editions=None,
                 workers=None, verify=False):
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        validate_directory(self.input_dir, "Input")
        validate_different_paths(self.input_dir, self.output_dir)

        self.staging_dir = Path(staging_dir) if staging_dir else (
            self.output_dir.parent / f".{self.output_dir.name}.staging"
        )
        self.editions = list(editions) if editions else list(EDITIONS)
        self.workers = workers
        self.verify = verify

    def present_editions(self):
        present = []
        for edition in self.editions:
            if (self.input_dir / edition).is_dir():
                present.append(edition)
            else:
                print(f"  (no '{edition}' directory in input, skipping edition)")
        if not present:
            raise MissingFileError(
                f"None of the editions {self.editions} exist under {self.input_dir}"
            )
        return present

    def convert(self):
        print("Stats Converter")
        print("=" * 50)
        print(f"Input:  {self.input_dir}")
        print(f"Output: {self.output_dir}")

        editions = self.present_editions()
        setup_staging_directory(self.staging_dir)

        for edition in editions:
            self.convert_edition(edition)

        if self.verify:
            print("\nVerifying staged output...")
            verify_output(self.staging_dir)

        print("\nFinalizing output...")
        generation = promote_output(self.staging_dir, self.output_dir)
        print(f"  Published {generation.name} → {self.output_dir}")
        print("\nDone!")

    def convert_edition(self, edition):
        """Steps 1-5 for one edition. Only step 1 failures are fatal."""
        edition_in = self.input_dir / edition
        edition_out = self.staging_dir / edition
        skip_log = []

        print(f"\nProcessing edition '{edition}'")

        print("\n[1/5] Exporting id map...")
        id_map = export_id_map(edition_in, edition_out)

        print("\n[2/5] Building dictionary and names index...")
        lookup = process_dictionary_and_names(
            edition_in / DICTIONARY_DIR, edition_out, skip_log, self.workers,
        )

        print("\n[3/5] Processing leaderboards...")
        process_leaderboards(
            edition_in / LEADERBOARDS_DIR, edition_out / LEADERBOARDS_DIR, lookup,
            skip_log, self.workers,
        )

        print("\n[4/5] Aggregating game metadata...")
        process_game_metadata(
            edition_in / LEADERBOARDS_DIR, edition_out, id_map, skip_log, self.workers,
        )

        print("\n[5/5] Sharding player profiles...")
        shards = process_players(
            edition_in / PLAYERS_DIR, edition_out, lookup, skip_log, self.workers,
        )
        print(f"  Wrote {shards} player shards")

        summarize_skips(skip_log)


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="Convert legacy stats dumps into paged binary artifacts")
    parser.add_argument("input_dir", nargs="?", default=str(DEFAULT_INPUT_DIR),
                        help="Upstream dump root containing one directory per edition")
    parser.add_argument("output_dir", nargs="?", default=str(DEFAULT_OUTPUT_DIR),
                        help="Published output path (replaced as a whole on success)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker threads per parallel stage (default: CPU count)")
    parser.add_argument("--verify", action="store_true",
                        help="Check page/rank/meta consistency before publishing")
    args = parser.parse_args(argv)

    try:
        converter = Converter(args.input_dir, args.output_dir, workers=args.workers, verify=args.verify)
        converter.convert()
    except (DataError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
