"""
Services: episode agents, orchestration and audio realization.
"""
