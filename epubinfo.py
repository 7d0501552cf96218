#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from folio.errors import EpubError
from folio.models import Book
from folio.reader import read_book
from folio.writer import write_book


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect an EPUB: metadata, table of contents and text.")
    parser.add_argument("book", help="Input EPUB file path")
    parser.add_argument("--toc", action="store_true", help="Print the chapter tree")
    parser.add_argument("--text", action="store_true", help="Print the plain text in reading order")
    parser.add_argument("--rewrite", metavar="OUT", help="Write the book back out to OUT")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _print_summary(book: Book) -> None:
    resources = book.resources
    print(f"Title: {book.title or ''}")
    print(f"Authors: {book.author}")
    print(f"Version: {book.format.opf.version.value}")
    print(
        "Resources: "
        f"html={len(resources.html)} css={len(resources.css)} images={len(resources.images)} "
        f"fonts={len(resources.fonts)} other={len(resources.other)}"
    )
    size = book.cover_size
    if size is not None:
        print(f"Cover: {size[0]}x{size[1]}")


def _print_toc(book: Book) -> None:
    tree = book.table_of_contents
    for chapter in tree.walk():
        depth = 0
        parent = tree.parent(chapter)
        while parent is not None:
            depth += 1
            parent = tree.parent(parent)
        target = chapter.absolute_path
        if chapter.hash_location:
            target = f"{target}#{chapter.hash_location}"
        print(f"{'  ' * depth}{chapter.title} ({target})")


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        book = read_book(Path(args.book))
        _print_summary(book)
        if args.toc:
            _print_toc(book)
        if args.text:
            print(book.to_plain_text())
        if args.rewrite:
            write_book(book, Path(args.rewrite))
            print(f"EPUB saved to: {args.rewrite}")
    except EpubError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return 0


def cli() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(cli())
