#!/usr/bin/env python3
"""
Build a full listening profile from the command line.

This script:
1. Resolves a bearer token from the environment
2. Runs every profile phase (basics, library, playlists, genres)
3. Optionally scans discography gaps and mainstream overlap
4. Prints the analysis summary and optionally writes JSON / CSV output

Usage:
    python scripts/build_profile.py                  # Full run
    python scripts/build_profile.py --no-gaps        # Skip discography/mainstream scans
    python scripts/build_profile.py --json out.json  # Save the full summary
    python scripts/build_profile.py --csv-dir data   # Export genre/timeline tables

Environment Variables (set in .env file or environment):
    SPOTIFY_ACCESS_TOKEN    - Bearer token (used as-is when set)

    Or, for headless runs:
    SPOTIPY_CLIENT_ID       - Spotify app client ID
    SPOTIPY_CLIENT_SECRET   - Spotify app client secret
    SPOTIPY_REFRESH_TOKEN   - Refresh token exchanged for an access token

    Optional:
    SPOTIFY_API_DELAY       - Seconds between request starts (default: 1.5)
    HEARDPRINT_VERBOSE      - Log every API call (true/false)
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from heardprint import config  # noqa: E402
from heardprint.analysis import genre_table, timeline_table  # noqa: E402
from heardprint.client import SpotifyClient  # noqa: E402
from heardprint.errors import AuthError, LongCooldown  # noqa: E402
from heardprint.orchestrator import ProfileRun  # noqa: E402
from heardprint.utils import log, set_verbose  # noqa: E402


def print_summary(run: ProfileRun) -> None:
    analysis = run.analysis_result
    stats = analysis.stats
    log("=" * 60)
    log(f"Profile for {(run.user or {}).get('name') or 'unknown user'}")
    log("=" * 60)
    log(f"Tracks: {stats['totalTracks']:,}  Artists: {stats['totalArtists']:,}  Genres: {stats['totalGenres']}")
    log(f"Explorer score: {analysis.explorer_score} ({analysis.explorer_label})")
    if stats["peakDecade"]:
        log(f"Peak decade: {stats['peakDecade']}  Median year: {stats['medianYear']}")
    if analysis.genre_radar:
        top = ", ".join(p["genre"] for p in analysis.genre_radar[:5])
        log(f"Top genres: {top}")
    if analysis.blind_spots:
        log(f"Blind spots: {', '.join(s['genre'] for s in analysis.blind_spots[:6])}")
    if run.mainstream_result:
        m = run.mainstream_result
        log(f"Mainstream: {m.overall_score} ({m.label})")
    if run.discography_result and run.discography_result.albums:
        best = run.discography_result.albums[0]
        log(f"Biggest gap: {best.artist} - {best.album} ({best.unheard_count} unheard)")
    warning_count = sum(len(v) for v in run.warnings.values())
    if warning_count:
        log(f"⚠️  {warning_count} warnings (see --json output)")


def main():
    parser = argparse.ArgumentParser(
        description="Build a listening profile and analyze it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/build_profile.py
    python scripts/build_profile.py --no-gaps --verbose
    python scripts/build_profile.py --json profile.json --csv-dir out
        """
    )
    parser.add_argument(
        "--no-gaps", action="store_true",
        help="Skip the discography-gap and mainstream-overlap scans"
    )
    parser.add_argument(
        "--json", type=Path, default=None,
        help="Write the full run summary as JSON to this path"
    )
    parser.add_argument(
        "--csv-dir", type=Path, default=None,
        help="Export genres.csv and timeline.csv to this directory"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log every API call"
    )
    parser.add_argument(
        "--no-progress", action="store_true",
        help="Disable progress bars"
    )
    args = parser.parse_args()

    if args.verbose:
        set_verbose(True)

    try:
        token = config.get_access_token()
    except Exception as e:
        log(f"ERROR: Could not obtain an access token: {e}")
        sys.exit(1)

    run = ProfileRun(SpotifyClient(token), progress=not args.no_progress)
    try:
        summary = run.run_all(include_gaps=not args.no_gaps)
    except AuthError as e:
        log(f"ERROR: Authentication failed: {e}")
        sys.exit(1)
    except LongCooldown as e:
        log(f"ERROR: Spotify asked us to wait {e.seconds}s ({e}). Try again later.")
        sys.exit(2)

    print_summary(run)

    if args.json:
        args.json.parent.mkdir(parents=True, exist_ok=True)
        args.json.write_text(json.dumps(summary, indent=2))
        log(f"💾 Wrote {args.json}")

    if args.csv_dir:
        args.csv_dir.mkdir(parents=True, exist_ok=True)
        genre_table(run.profile).to_csv(args.csv_dir / "genres.csv", index=False)
        timeline_table(run.analysis_result).to_csv(args.csv_dir / "timeline.csv", index=False)
        log(f"💾 Exported tables to {args.csv_dir}")


if __name__ == "__main__":
    main()
