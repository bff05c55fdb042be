"""Builds small but valid PDFs in memory, so ingestion tests need no fixture files."""

LINES_PER_PAGE = 32
LINE_WIDTH = 58

WINGSPAN_PAGES = [
    (
        "Setup. Give each player a player mat, eight food tokens of any type and five "
        "random bird cards. Each player keeps up to five birds and discards one food "
        "token for each bird kept. Place the bird feeder dice in the feeder and fill "
        "the bird tray with three face up cards. Shuffle the bonus cards and deal two "
        "to each player, who keeps one of them. Place the goal board with one random "
        "goal tile for each of the four rounds. The first player takes the first "
        "player token and play proceeds clockwise. "
    ),
    (
        "Turns. On your turn choose one of four actions: play a bird from your hand, "
        "gain food from the bird feeder, lay eggs on your birds, or draw bird cards. "
        "To play a bird pay its food cost and place it in the leftmost open slot of "
        "a habitat, paying an egg cost for the column if shown. Brown powers activate "
        "when you take the action of that habitat row, from right to left. Pink "
        "powers trigger on other players turns. Each round you have one fewer action "
        "cube, so later rounds are shorter. "
    ),
    (
        "Scoring. At game end add points from each source on the score pad. Score "
        "the point value printed on every bird you played. Score bonus cards by "
        "their printed conditions. Score end of round goals as recorded on the goal "
        "board. Score one point for each egg on your birds, one point for each food "
        "token cached on a bird, and one point for each card tucked behind a bird. "
        "The player with the most points wins; ties are broken by unused food. "
    ),
]


def wrap_words(text: str, lines: int = LINES_PER_PAGE, width: int = LINE_WIDTH) -> list[str]:
    """Pack words from `text`, repeated as needed, into exactly `lines` lines."""
    words = text.split()
    out: list[str] = []
    current = ""
    i = 0
    while len(out) < lines:
        word = words[i % len(words)]
        candidate = f"{current} {word}" if current else word
        if len(candidate) > width:
            out.append(current)
            current = word
        else:
            current = candidate
        i += 1
    return out


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _content_stream(lines: list[str]) -> bytes:
    ops = ["BT", "/F1 10 Tf", "72 740 Td"]
    for n, line in enumerate(lines):
        if n:
            ops.append("0 -14 Td")
        ops.append(f"({_escape(line)}) Tj")
    ops.append("ET")
    return "\n".join(ops).encode("latin-1")


def make_pdf(pages: list[list[str]]) -> bytes:
    """One PDF page per entry; each entry is the text lines of that page.

    An empty list makes a page with a filled rectangle and no text.
    """
    objects: list[bytes] = []
    n_pages = len(pages)
    page_ids = [4 + 2 * i for i in range(n_pages)]

    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects.append(f"<< /Type /Pages /Kids [{kids}] /Count {n_pages} >>".encode())
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>")

    for pid, lines in zip(page_ids, pages):
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode()
        )
        stream = _content_stream(lines) if lines else b"0.5 g\n72 72 200 200 re\nf"
        objects.append(
            b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for num, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{num} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


def wingspan_rules_pdf() -> bytes:
    """Three pages (setup, turns, scoring), a bit over 5000 characters of text."""
    return make_pdf([wrap_words(text) for text in WINGSPAN_PAGES])


def short_rules_pdf(text: str = "Each player draws two cards at the start of the turn.") -> bytes:
    return make_pdf([[text]])


def image_only_pdf() -> bytes:
    return make_pdf([[]])
