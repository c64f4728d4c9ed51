"""Test doubles for the PZEM gateway client."""
