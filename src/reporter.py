"""Risk reports and analysis exports."""
import json
from datetime import datetime, timezone

from preprocessor import item_text
from detector import calculate_detailed_similarity, extract_common_phrases

HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 50
LOW_RISK_SCORE = 30

SIMILARITY_LEVELS = [
    (90, 'identical', 'Identical'),
    (70, 'high', 'High Similarity'),
    (50, 'medium', 'Medium Similarity'),
    (30, 'low', 'Low Similarity'),
]


def _timestamp():
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def get_similarity_level(score):
    """
    Maps a 0-100 score to a level name and display label.
    """
    for minimum, level, label in SIMILARITY_LEVELS:
        if score >= minimum:
            return {'level': level, 'label': label}
    return {'level': 'none', 'label': 'Minimal Similarity'}


def generate_plagiarism_report(target_item, similar_items):
    """
    Splits the matches of one item into risk buckets.
    Matches under LOW_RISK_SCORE are counted but not bucketed.
    """
    high_risk = [item for item in similar_items if item['similarity'] >= HIGH_RISK_SCORE]
    medium_risk = [item for item in similar_items
                   if MEDIUM_RISK_SCORE <= item['similarity'] < HIGH_RISK_SCORE]
    low_risk = [item for item in similar_items
                if LOW_RISK_SCORE <= item['similarity'] < MEDIUM_RISK_SCORE]

    if high_risk:
        risk_level = 'high'
    elif medium_risk:
        risk_level = 'medium'
    else:
        risk_level = 'low'

    return {
        'target_item': target_item,
        'total_matches': len(similar_items),
        'risk_level': risk_level,
        'high_risk_matches': high_risk,
        'medium_risk_matches': medium_risk,
        'low_risk_matches': low_risk,
        'timestamp': _timestamp(),
    }


def describe_pair(pair, strip_code_comments=False, max_text_length=None):
    """
    Detail view of one similar pair: metric breakdown and shared phrases.
    Pass the settings the pair was scored with so the breakdown agrees with its similarity.
    """
    text1 = item_text(pair['item1'], strip_code_comments)
    text2 = item_text(pair['item2'], strip_code_comments)
    return {
        'similarity': pair['similarity'],
        'level': get_similarity_level(pair['similarity']),
        'detailed': calculate_detailed_similarity(text1, text2, max_text_length=max_text_length),
        'common_phrases': extract_common_phrases(text1, text2),
    }


def _author(item, profiles):
    profile = profiles.get(item.get('created_by')) or {}
    return profile.get('name') or "Unknown"


def _export_item(item, profiles):
    return {
        'id': item.get('id'),
        'title': item.get('title'),
        'author': _author(item, profiles),
    }


def build_analysis_export(pairs, mode, threshold, total_items, team=None, profiles=None,
                          timestamp=None, details=False, strip_code_comments=False,
                          max_text_length=None):
    """
    Builds the downloadable report of a pairwise scan.
    Authors are resolved through profiles ({user_id: {'name': ...}}).
    """
    profiles = profiles or {}

    exported_pairs = []
    for pair in pairs:
        entry = {
            'item1': _export_item(pair['item1'], profiles),
            'item2': _export_item(pair['item2'], profiles),
            'similarity': pair['similarity'],
        }
        if details:
            detail = describe_pair(pair, strip_code_comments, max_text_length)
            entry['breakdown'] = detail['detailed']['breakdown']
            entry['common_phrases'] = detail['common_phrases']
        exported_pairs.append(entry)

    return {
        'team': team,
        'analysis_mode': mode,
        'threshold': threshold,
        'timestamp': timestamp or _timestamp(),
        'total_items': total_items,
        'total_pairs': len(pairs),
        'pairs': exported_pairs,
    }


def write_report(report, output_path):
    """
    Writes a report as indented JSON.
    """
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)
