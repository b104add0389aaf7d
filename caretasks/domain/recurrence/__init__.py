"""Recurring task scheduling: generation, identity, merging, materialization and series edits"""
