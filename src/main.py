import argparse
import json
import os
import sys
import time

from preprocessor import load_items, item_text
from detector import DEFAULT_THRESHOLD, find_all_similar_pairs, find_similar_to_item
from reporter import (build_analysis_export, generate_plagiarism_report, get_similarity_level,
                      write_report)

MODE_TYPES = {
    'prompts': 'prompt',
    'results': 'result',
}


def load_profiles(path):
    """
    Loads the user profiles used to name authors in the report.
    """
    with open(path, 'r', encoding='utf-8') as f:
        profiles = json.load(f)

    if not isinstance(profiles, dict):
        raise ValueError(f"{path}: expected a JSON object of profiles, got {type(profiles).__name__}")

    return profiles


def select_items(items, mode):
    """
    Keeps the items analyzed in this mode (prompts or results).
    """
    wanted = MODE_TYPES[mode]
    return [item for item in items if item['type'] == wanted]


def check_similarity(items_path, threshold=DEFAULT_THRESHOLD, mode='prompts', output_path=None,
                     profiles=None, team=None, details=False, strip_comments=False,
                     max_length=None):
    """
    Main function: scans a collection for similar pairs and writes the report.
    Returns the list of similar pairs.
    """
    print("Step 1: Loading items...")
    items = select_items(load_items(items_path), mode)
    print(f"Loaded {len(items)} {mode}.")

    if len(items) < 2:
        print("Need at least 2 items to analyze.")
        return []

    print("Step 2: Pairwise comparison...")
    pairs = find_all_similar_pairs(items, threshold, max_text_length=max_length,
                                   strip_code_comments=strip_comments, progress=True)

    if not pairs:
        print("No similar items found above threshold.")
    else:
        print(f"Found {len(pairs)} similar {MODE_TYPES[mode]} pairs.")
        for pair in pairs[:10]:
            level = get_similarity_level(pair['similarity'])
            print(f"  {pair['similarity']:3d}%  {pair['item1']['id']} <-> {pair['item2']['id']}"
                  f"  ({level['label']})")

    if output_path is None:
        output_path = f"similarity-report-{int(time.time() * 1000)}.json"

    print("Step 3: Writing report...")
    report = build_analysis_export(pairs, mode, threshold, len(items), team=team,
                                   profiles=profiles, details=details,
                                   strip_code_comments=strip_comments, max_text_length=max_length)
    write_report(report, output_path)
    print(f"Report written to {output_path}")

    return pairs


def check_item(items_path, target_id, threshold=DEFAULT_THRESHOLD, mode='prompts',
               output_path=None, strip_comments=False, max_length=None):
    """
    Compares one item with the rest of the collection and writes its plagiarism report.
    Returns the report, or None when the target does not exist.
    """
    items = select_items(load_items(items_path), mode)
    target = next((item for item in items if item['id'] == target_id), None)
    if target is None:
        print(f"Item {target_id} not found among {len(items)} {mode}.")
        return None

    similar = find_similar_to_item(target, items, threshold, max_text_length=max_length,
                                   strip_code_comments=strip_comments)
    report = generate_plagiarism_report(target, similar)

    print(f"{target_id}: {report['total_matches']} matches, risk level {report['risk_level']}")
    for match in similar:
        print(f"  {match['similarity']:3d}%  {match['id']}  {item_text(match)[:50]!r}")

    if output_path is None:
        output_path = f"plagiarism-report-{int(time.time() * 1000)}.json"
    write_report(report, output_path)
    print(f"Report written to {output_path}")

    return report


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Find similar prompts and results in a collection.")
    parser.add_argument('items', help="JSON list of items, or a directory of author folders")
    parser.add_argument('--mode', choices=sorted(MODE_TYPES), default='prompts')
    parser.add_argument('--threshold', type=int, default=DEFAULT_THRESHOLD)
    parser.add_argument('--target', help="id of a single item to check against the rest")
    parser.add_argument('--profiles', help="JSON object mapping user ids to profiles with a name")
    parser.add_argument('--team', help="team name recorded in the report")
    parser.add_argument('--details', action='store_true',
                        help="add metric breakdown and common phrases per pair")
    parser.add_argument('--strip-comments', action='store_true',
                        help="remove code comments from items with a language")
    parser.add_argument('--max-length', type=int,
                        help="truncate normalized texts for the character-level metrics")
    parser.add_argument('--output', help="report path")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if not os.path.exists(args.items):
        print(f"Error: {args.items} does not exist")
        return 1

    profiles = {}
    if args.profiles:
        if not os.path.exists(args.profiles):
            print(f"Error: {args.profiles} does not exist")
            return 1
        try:
            profiles = load_profiles(args.profiles)
        except ValueError as e:
            print(f"Error: invalid profiles file: {e}")
            return 1

    try:
        if args.target:
            report = check_item(args.items, args.target, args.threshold, args.mode, args.output,
                                args.strip_comments, args.max_length)
            if report is None:
                return 1
        else:
            check_similarity(args.items, args.threshold, args.mode, args.output, profiles,
                             args.team, args.details, args.strip_comments, args.max_length)
    except ValueError as e:
        print(f"Error: invalid items file: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
