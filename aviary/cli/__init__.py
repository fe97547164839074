"""
Aviary CLI.

Usage:
    aviary serve <module:attr>
    aviary graph <module:attr>

TARGET names an application plugin, or a (sync or async) factory returning
either an application plugin or a booted runtime.
"""

__cli_name__ = "aviary"
