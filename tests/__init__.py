"""Tests for aiowatchsync."""
