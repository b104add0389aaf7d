"""Recurring care task scheduling engine"""
