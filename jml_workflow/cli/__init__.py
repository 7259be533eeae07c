"""
Command line interface for the JML Workflow Engine.
"""
