"""Release changelog generator.

Reconciles a remote repository's tags, branch history, closed issues and
merged changes into a per-release changelog. Every issue and merged change
is attributed to the earliest release that contains it.
"""

__version__ = "0.1.0"
