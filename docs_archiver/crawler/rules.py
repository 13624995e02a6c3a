"""
Rewrite rules for references embedded in stylesheets and scripts.

Each rule is a regex whose named group ``url`` holds the reference; only
that span is replaced. Framework quirks belong here as new entries rather
than as special cases in the rewriter.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Pattern, Tuple

from .models import ArtifactKind


EXACT = "exact"
PREFIX = "prefix"

# File extensions worth rewriting when they appear as root-relative strings
ASSET_EXTENSIONS = r'(?:js|mjs|css|json|png|jpe?g|gif|svg|webp|ico|avif|woff2?|ttf|otf|eot|mp4|webm)'


@dataclass(frozen=True)
class RewriteRule:
    """
    A pattern locating one kind of reference.

    Attributes:
        name: Short identifier used in log messages
        kinds: Artifact kinds the rule applies to
        pattern: Compiled regex with a named group ``url``
        mode: EXACT rewrites a file reference; PREFIX rewrites a URL
              prefix (ending in '/') to a local directory prefix
        module_specifier: Emit references starting with './' or '../'
    """

    name: str
    kinds: FrozenSet[ArtifactKind]
    pattern: Pattern
    mode: str = EXACT
    module_specifier: bool = False


STYLESHEET_RULES: Tuple[RewriteRule, ...] = (
    RewriteRule(
        name="css-import",
        kinds=frozenset({ArtifactKind.STYLESHEET}),
        pattern=re.compile(r'@import\s+(?P<q>["\'])(?P<url>[^"\']+)(?P=q)', re.IGNORECASE),
    ),
    RewriteRule(
        name="css-url",
        kinds=frozenset({ArtifactKind.STYLESHEET}),
        pattern=re.compile(r'url\(\s*(?P<q>["\']?)(?P<url>[^"\')\s]+)(?P=q)\s*\)', re.IGNORECASE),
    ),
)

SCRIPT_RULES: Tuple[RewriteRule, ...] = (
    # import("/_next/static/chunks/a.js")
    RewriteRule(
        name="dynamic-import",
        kinds=frozenset({ArtifactKind.SCRIPT}),
        pattern=re.compile(r'\bimport\s*\(\s*(?P<q>["\'])(?P<url>[^"\'\s]+)(?P=q)\s*\)'),
        module_specifier=True,
    ),
    # `https://cdn.example.com/icons/${name}.svg`
    RewriteRule(
        name="template-prefix",
        kinds=frozenset({ArtifactKind.SCRIPT}),
        pattern=re.compile(r'`(?P<url>(?:https?:)?//[A-Za-z0-9][^`"\'\s$]*/)\$\{'),
        mode=PREFIX,
    ),
    # "https://cdn.example.com/a.js", also \"...\" inside serialized JSX
    RewriteRule(
        name="absolute-url",
        kinds=frozenset({ArtifactKind.SCRIPT}),
        pattern=re.compile(r'(?P<q>\\?["\'`])(?P<url>(?:https?:)?//[A-Za-z0-9][^"\'`\\\s$<>]*)(?P=q)'),
    ),
    # "/_next/static/css/app.css" and other bundler paths
    RewriteRule(
        name="root-path",
        kinds=frozenset({ArtifactKind.SCRIPT}),
        pattern=re.compile(
            r'(?P<q>\\?["\'`])(?P<url>/(?!/)[^"\'`\\\s$<>?#]*\.' + ASSET_EXTENSIONS +
            r'(?:\?[^"\'`\\\s]*)?)(?P=q)'
        ),
    ),
    # Route chunk maps: path:"/guide"
    RewriteRule(
        name="path-map",
        kinds=frozenset({ArtifactKind.SCRIPT}),
        pattern=re.compile(r'\bpath\s*:\s*(?P<q>["\'])(?P<url>/[^"\']*)(?P=q)'),
    ),
)

DEFAULT_RULES: Tuple[RewriteRule, ...] = STYLESHEET_RULES + SCRIPT_RULES


def rules_for(kind: ArtifactKind, rules: Tuple[RewriteRule, ...] = DEFAULT_RULES) -> List[RewriteRule]:
    """Rules applying to an artifact kind, in table order."""
    return [rule for rule in rules if kind in rule.kinds]


# Markup attributes holding a single reference
MARKUP_URL_ATTRIBUTES = ('href', 'src', 'poster', 'background', 'data-src', 'xlink:href')

# Markup attributes holding a comma-separated list of "url descriptor"
MARKUP_SRCSET_ATTRIBUTES = ('srcset', 'imagesrcset', 'data-srcset')

# (tag, attribute) pairs outside the generic table
MARKUP_TAG_ATTRIBUTES = (
    ('object', 'data'),
)

# <meta content> is only a reference when it is absolute or root-relative
META_CONTENT_PREFIXES = ('http://', 'https://', '/')
