"""
Core workflow engine: context budgeting, output recovery, the stage
machine, episode progress and the validate-and-save loop.
"""
