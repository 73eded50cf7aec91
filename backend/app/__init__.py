"""Holarchy pages backend: page CRUD, sync and change events over HTTP."""
