# src/tapharness/cli/__init__.py
