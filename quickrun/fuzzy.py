"""Subsequence fuzzy matching for launcher entries.

A candidate matches when every query character appears, in order and
case-insensitively, in its description (or, failing that, its identifier).
Matches are ordered by:

    1. longest contiguous run of matched characters (longer first)
    2. position of the first matched character (earlier first)
    3. length of the matched text (shorter first)
    4. configuration order

    >>> [e.name for e, _ in rank("ff", entries)]   # Firefox, FindFile, Offline
    ['offline', 'firefox', 'findfile']
"""

from collections import namedtuple

Score = namedtuple("Score", ["run", "start", "length"])


def _default_fields(candidate):
    return (candidate.title, candidate.name)


def _is_subsequence(q, t, pos):
    for ch in q:
        pos = t.find(ch, pos)
        if pos == -1:
            return False
        pos += 1
    return True


def _longest_run(q, t, start):
    """Longest contiguous run over every alignment with q[0] at t[start].

    A run q[a:a+r] placed at t[k:k+r] is usable when the prefix q[:a] fits
    before k and the suffix q[a+r:] fits after k+r.
    """
    m, n = len(q), len(t)

    # after[a]: first free index once q[:a] is matched as early as possible
    after = [start, start + 1]
    for a in range(1, m):
        after.append(t.find(q[a], after[a]) + 1)

    # before[b]: last index where q[b:] can still begin
    before = [0] * (m + 1)
    before[m] = n
    for b in range(m - 1, 0, -1):
        before[b] = t.rfind(q[b], 0, before[b + 1])

    best = 1
    for a in range(m):
        for k in ([start] if a == 0 else range(after[a], n)):
            run = 0
            while (a + run < m and k + run < n and q[a + run] == t[k + run]
                   and k + run + 1 <= before[a + run + 1]):
                run += 1
            best = max(best, run)
    return best


def match(query, text):
    """Score text against query, or None when query is not a subsequence."""
    if text is None:
        return None
    q = query.lower()
    t = text.lower()
    if not q:
        return Score(0, 0, len(t))

    best = None
    start = t.find(q[0])
    while start != -1:
        if not _is_subsequence(q[1:], t, start + 1):
            # later starts only see a suffix of this one, so they fail too
            break
        run = _longest_run(q, t, start)
        if best is None or run > best.run:
            best = Score(run, start, len(t))
        start = t.find(q[0], start + 1)
    return best


def score_candidate(query, candidate, fields=_default_fields):
    """First searchable field that matches decides the score."""
    for text in fields(candidate):
        score = match(query, text)
        if score is not None:
            return score
    return None


class Ranking:
    """Lazy, restartable ranking: each iteration recomputes from scratch."""

    def __init__(self, query, candidates, fields=_default_fields):
        self.query = query
        self.candidates = list(candidates)
        self.fields = fields

    def __iter__(self):
        if not self.query:
            for c in self.candidates:
                yield c, None
            return
        scored = []
        for index, c in enumerate(self.candidates):
            score = score_candidate(self.query, c, self.fields)
            if score is not None:
                scored.append((-score.run, score.start, score.length, index, c, score))
        scored.sort(key=lambda s: s[:4])
        for *_, c, score in scored:
            yield c, score


def rank(query, candidates, fields=_default_fields):
    """Rank candidates against query. Returns an iterable of (candidate, score)."""
    return Ranking(query, candidates, fields)
