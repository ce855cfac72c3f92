"""Built-in CLI sub-commands for lfm.

Each module in this package defines either command functions or a
:class:`typer.Typer` sub-application that is registered on the root app in
:mod:`lfm.app`:

* :mod:`~lfm.commands.stats` -- Last.fm queries (``artists``, ``tracks``,
  ``albums``, ``similar``, ``artist-top-tracks``, ``artist-top-albums``,
  ``artist-tracks``, ``artist-albums``, ``check``, ``recent``).
* :mod:`~lfm.commands.cache` -- ``cache status``, ``cache clear`` and
  ``cache cleanup``.
* :mod:`~lfm.commands.config` -- ``config show``, ``config set`` and
  ``config reset``.
"""
