"""Text normalization, tokenization and item loading."""
import json
import os
import re

PUNCTUATION_RE = re.compile(r'[.,;:!?()\[\]{}\'"]')

LANGUAGE_BY_EXTENSION = {
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.ts': 'typescript',
    '.tsx': 'typescript',
    '.py': 'python',
}


def normalize_text(text):
    """
    Lower-cases, trims, collapses whitespace and strips common punctuation.
    Returns "" for None or empty input.
    """
    if not text:
        return ""

    text = text.lower().strip()
    # Collapse whitespace runs (before punctuation removal, so a trailing
    # " ." leaves a trailing space behind)
    text = re.sub(r'\s+', ' ', text)
    text = PUNCTUATION_RE.sub('', text)
    text = re.sub(r'[\r\n]+', ' ', text)
    return text


def tokenize(text):
    """
    Splits normalized text into words, dropping tokens of 2 characters or less.
    """
    return [word for word in normalize_text(text).split() if len(word) > 2]


def generate_ngrams(tokens, n=3):
    """
    Returns the list of contiguous n-token phrases, in order.
    """
    if len(tokens) < n:
        return []
    return [" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)]


def strip_comments(code, language):
    """
    Removes comments for the languages we know about.
    Other languages are returned unchanged.
    """
    if not code:
        return ""

    if language in ['javascript', 'typescript']:
        # Block comments first so a "//" inside one does not eat the closing "*/"
        code = re.sub(r'/\*.*?\*/', '', code, flags=re.DOTALL)
        code = re.sub(r'//.*', '', code)
    elif language == 'python':
        code = re.sub(r'#.*', '', code)
        code = re.sub(r"'''.*?'''", '', code, flags=re.DOTALL)

    return code


def clean_code(code, language):
    """
    Removes comments and normalizes whitespace.
    """
    code = strip_comments(code, language)
    return re.sub(r'\s+', ' ', code).strip()


def item_text(item, strip_code_comments=False):
    """Text of an item as it should be compared."""
    text = item.get('text') or ""
    if strip_code_comments and item.get('language'):
        return clean_code(text, item['language'])
    return text


def make_item(data):
    """
    Builds a TextItem dict from a raw document, accepting both the
    snake_case keys used here and the camelCase keys of the document store.
    """
    item = {
        'id': str(data.get('id', "")),
        'text': data.get('text') or "",
        'title': data.get('title') or "",
        'type': data.get('type') or 'prompt',
        'created_by': data.get('created_by', data.get('createdBy')),
        'created_at': data.get('created_at', data.get('createdAt')),
        'tags': list(data.get('tags') or []),
    }
    if data.get('language'):
        item['language'] = data['language']
    return item


def load_items_file(path):
    """
    Loads a JSON list of text items.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of items, got {type(data).__name__}")

    return [make_item(entry) for entry in data]


def crawl_directory(root_path):
    """
    Recursively turns files into result items.
    The immediate subdirectories of root_path are authors:
    root_path / author / ... / file
    Files that cannot be read as UTF-8 are reported and skipped.
    """
    items = []

    for root, dirs, files in os.walk(root_path):
        dirs.sort()
        rel_path = os.path.relpath(root, root_path)
        if rel_path == '.':
            continue

        author = rel_path.split(os.sep)[0]

        for file in sorted(files):
            full_path = os.path.join(root, file)
            ext = os.path.splitext(file)[1].lower()

            try:
                with open(full_path, 'r', encoding='utf-8') as f:
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                print(f"Error reading {full_path}: {e}")
                continue

            item = {
                'id': os.path.relpath(full_path, root_path).replace(os.sep, '/'),
                'text': content,
                'title': file,
                'type': 'result',
                'created_by': author,
                'created_at': os.path.getmtime(full_path),
                'tags': [],
            }
            if ext in LANGUAGE_BY_EXTENSION:
                item['language'] = LANGUAGE_BY_EXTENSION[ext]
            items.append(item)

    return items


def load_items(path):
    """
    Loads items from a JSON file or a directory of author folders.
    """
    if os.path.isdir(path):
        return crawl_directory(path)
    return load_items_file(path)
