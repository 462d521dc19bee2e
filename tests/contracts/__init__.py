"""Tests for contracts package: context, enums and the error taxonomy."""
