"""
Link rewriter for converting URLs to local relative paths.

Rewrites references in saved pages, stylesheets and scripts so they
point at the mirrored files. Running it twice changes nothing.
"""

import os
from typing import Callable, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse

from .models import ArtifactKind
from .rules import (
    DEFAULT_RULES,
    MARKUP_SRCSET_ATTRIBUTES,
    MARKUP_TAG_ATTRIBUTES,
    MARKUP_URL_ATTRIBUTES,
    META_CONTENT_PREFIXES,
    PREFIX,
    RewriteRule,
    rules_for,
)
from ..utils.constants import MAX_REWRITE_BYTES
from ..utils.errors import MappingError, WriteError
from ..utils.log import get_logger
from ..utils.markup import parse_soup
from ..utils.paths import (
    SKIPPED_SCHEMES,
    PathMapper,
    PathMapping,
    normalize_url,
    read_text,
    relative_reference,
    resolve_local_reference,
    write_file,
)


def _split_fragment(reference: str) -> Tuple[str, str]:
    if '#' in reference:
        url, fragment = reference.split('#', 1)
        return url, '#' + fragment
    return reference, ''


def _is_relative(reference: str) -> bool:
    """True for references with no scheme that are not root- or protocol-relative."""
    return not urlparse(reference).scheme and not reference.startswith('/')


class LinkRewriter:
    """
    Rewrites URLs in saved artifacts to local relative paths.

    References are looked up in the PathMapping and emitted relative to
    the directory of the artifact containing them. Unmapped references
    are left untouched and collected in ``unresolved``.
    """

    def __init__(
        self,
        output_dir: str,
        mapping: PathMapping,
        mapper: PathMapper,
        rules: Tuple[RewriteRule, ...] = DEFAULT_RULES,
        max_bytes: Optional[int] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            output_dir: Base output directory
            mapping: URL to local path table
            mapper: Path mapper (for directory prefixes)
            rules: Rewrite rule table for stylesheets and scripts
            max_bytes: Larger artifacts are skipped (MAX_REWRITE_BYTES by default)
        """
        self.output_dir = output_dir
        self.mapping = mapping
        self.mapper = mapper
        self.rules = rules
        self.logger = get_logger("rewriter")
        self.max_bytes = MAX_REWRITE_BYTES if max_bytes is None else max_bytes
        self.unresolved: Set[str] = set()
        # Artifacts left as saved because they exceed max_bytes
        self.skipped: List[str] = []

    def rewrite(self, artifact_path: str, kind: ArtifactKind) -> bool:
        """
        Rewrite one saved artifact in place.

        Args:
            artifact_path: Local path of the artifact under the output root
            kind: How to interpret the artifact's content

        Returns:
            True if the file was changed
        """
        file_path = os.path.join(self.output_dir, *artifact_path.split('/'))

        try:
            if os.path.getsize(file_path) > self.max_bytes:
                self.logger.warning(f"Not rewriting oversized file: {artifact_path}")
                if artifact_path not in self.skipped:
                    self.skipped.append(artifact_path)
                return False
            text = read_text(file_path)
        except OSError as e:
            self.logger.warning(f"Cannot read {artifact_path}: {e}")
            return False

        base_url = self.mapping.url_for(artifact_path)
        new_text = self.rewrite_text(text, kind, artifact_path, base_url)
        if new_text == text:
            return False

        try:
            write_file(file_path, new_text)
        except WriteError as e:
            self.logger.warning(str(e))
            return False

        self.logger.debug(f"Rewrote {artifact_path}")
        return True

    def rewrite_text(
        self,
        text: str,
        kind: ArtifactKind,
        artifact_path: str,
        base_url: Optional[str] = None
    ) -> str:
        """
        Rewrite references in artifact content.

        Args:
            text: Artifact content
            kind: How to interpret the content
            artifact_path: Local path the content is saved at
            base_url: Remote URL the content came from (for relative references)

        Returns:
            Rewritten content (the same string when nothing changed)
        """
        kind = ArtifactKind(kind)
        if kind is ArtifactKind.MARKUP:
            return self._rewrite_markup(text, artifact_path, base_url)
        return self._apply_rules(text, kind, artifact_path, base_url)

    def local_reference(
        self,
        reference: str,
        artifact_path: str,
        base_url: Optional[str],
        module_specifier: bool = False
    ) -> Optional[str]:
        """
        Get the local replacement for a single reference.

        Args:
            reference: Reference as written in the artifact
            artifact_path: Local path of the artifact
            base_url: Remote URL of the artifact
            module_specifier: Prefix same-directory results with './'

        Returns:
            Replacement string, or None when the reference stays as is
        """
        reference = reference.strip()
        if not reference or reference.lower().startswith(SKIPPED_SCHEMES):
            return None

        url, fragment = _split_fragment(reference)
        if not url:
            return None

        if _is_relative(url):
            if module_specifier and not url.startswith('.'):
                # Bare module names resolve through the bundler, not the filesystem
                return None
            local = resolve_local_reference(artifact_path, url.split('?', 1)[0])
            if local is not None and self.mapping.is_local_path(local):
                return None
            if not base_url:
                return None

        full_url = normalize_url(url, base_url)
        if not full_url:
            return None

        local_path = self.mapping.get(full_url)
        if local_path is None:
            self._unresolved(full_url)
            return None

        new_reference = relative_reference(artifact_path, local_path)
        if module_specifier and not new_reference.startswith('../'):
            new_reference = './' + new_reference
        new_reference += fragment

        return new_reference if new_reference != reference else None

    def local_prefix(self, prefix: str, artifact_path: str) -> Optional[str]:
        """
        Get the local replacement for a URL prefix ending in '/'.

        Returns:
            Relative directory prefix ending in '/', or None when no mapped
            URL starts with the prefix
        """
        if prefix.startswith('//'):
            prefix = 'https:' + prefix
        normalized = normalize_url(prefix)
        if not normalized:
            return None
        if not normalized.endswith('/'):
            normalized += '/'

        if not self.mapping.has_prefix(normalized):
            self._unresolved(normalized)
            return None

        try:
            local_dir = self.mapper.map_directory(normalized)
        except MappingError as e:
            self.logger.debug(f"Cannot map prefix {prefix}: {e}")
            return None

        return relative_reference(artifact_path, local_dir or '.') + '/'

    def _unresolved(self, url: str) -> None:
        if url not in self.unresolved:
            self.unresolved.add(url)
            self.logger.debug(f"Unresolved reference: {url}")

    def _apply_rules(
        self,
        text: str,
        kind: ArtifactKind,
        artifact_path: str,
        base_url: Optional[str]
    ) -> str:
        """Apply every rule for the artifact kind, one after another."""
        for rule in rules_for(kind, self.rules):
            text = self._apply_rule(rule, text, artifact_path, base_url)
        return text

    def _apply_rule(
        self,
        rule: RewriteRule,
        text: str,
        artifact_path: str,
        base_url: Optional[str]
    ) -> str:
        def replace(match):
            reference = match.group('url')
            if rule.mode == PREFIX:
                new_reference = self.local_prefix(reference, artifact_path)
            else:
                new_reference = self.local_reference(
                    reference, artifact_path, base_url, rule.module_specifier
                )
            if new_reference is None:
                return match.group(0)

            if 'q' in match.groupdict() and not match.group('q'):
                # Unquoted CSS url() cannot hold these
                for char in '()\'" ':
                    new_reference = new_reference.replace(char, f"%{ord(char):02X}")

            start = match.start('url') - match.start(0)
            end = match.end('url') - match.start(0)
            whole = match.group(0)
            return whole[:start] + new_reference + whole[end:]

        return rule.pattern.sub(replace, text)

    def _rewrite_markup(self, html: str, artifact_path: str, base_url: Optional[str]) -> str:
        soup = parse_soup(html)
        changed = False

        # <base href> changes how the page's references resolve
        for base in soup.find_all('base'):
            href = base.get('href', '').strip()
            if href and base_url:
                base_url = urljoin(base_url, href)
            base.decompose()
            changed = True

        def rewrite_attr(elem, attr: str, convert: Callable[[str], Optional[str]]) -> None:
            nonlocal changed
            value = elem.get(attr)
            if not isinstance(value, str) or not value.strip():
                return
            new_value = convert(value)
            if new_value is not None and new_value != value:
                elem[attr] = new_value
                changed = True

        def single(value: str) -> Optional[str]:
            return self.local_reference(value, artifact_path, base_url)

        def srcset(value: str) -> Optional[str]:
            return self._rewrite_srcset(value, artifact_path, base_url)

        def style(value: str) -> Optional[str]:
            return self._apply_rules(value, ArtifactKind.STYLESHEET, artifact_path, base_url)

        for attr in MARKUP_URL_ATTRIBUTES:
            for elem in soup.find_all(attrs={attr: True}):
                if elem.name == 'base':
                    continue
                rewrite_attr(elem, attr, single)

        for tag, attr in MARKUP_TAG_ATTRIBUTES:
            for elem in soup.find_all(tag, attrs={attr: True}):
                rewrite_attr(elem, attr, single)

        for attr in MARKUP_SRCSET_ATTRIBUTES:
            for elem in soup.find_all(attrs={attr: True}):
                rewrite_attr(elem, attr, srcset)

        for elem in soup.find_all(style=True):
            rewrite_attr(elem, 'style', style)

        for meta in soup.find_all('meta', content=True):
            content = meta.get('content', '').strip()
            if content.startswith(META_CONTENT_PREFIXES) and not content.startswith('//'):
                rewrite_attr(meta, 'content', single)

        for style_tag in soup.find_all('style'):
            if style_tag.string:
                new_css = self._apply_rules(
                    style_tag.string, ArtifactKind.STYLESHEET, artifact_path, base_url
                )
                if new_css != style_tag.string:
                    style_tag.string = new_css
                    changed = True

        for script in soup.find_all('script', src=False):
            if script.string:
                new_js = self._apply_rules(
                    script.string, ArtifactKind.SCRIPT, artifact_path, base_url
                )
                if new_js != script.string:
                    script.string = new_js
                    changed = True

        if not changed:
            return html
        return str(soup)

    def _rewrite_srcset(self, srcset: str, artifact_path: str, base_url: Optional[str]) -> Optional[str]:
        """
        Rewrite URLs in a srcset attribute.

        Returns:
            Rewritten srcset string, or None when no candidate changed
        """
        new_parts: List[str] = []
        changed = False

        for part in srcset.split(','):
            part = part.strip()
            if not part:
                continue

            pieces = part.split()
            url = pieces[0]
            descriptor = ' '.join(pieces[1:])

            new_url = self.local_reference(url, artifact_path, base_url)
            if new_url is not None:
                url = new_url
                changed = True

            new_parts.append(f"{url} {descriptor}" if descriptor else url)

        if not changed:
            return None
        return ', '.join(new_parts)
