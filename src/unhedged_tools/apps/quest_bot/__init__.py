"""Unhedged quest bot.

Find short-duration binary markets, wait for the pre-close betting window,
and repeatedly bet with the pool majority when the live spot price agrees.
"""
