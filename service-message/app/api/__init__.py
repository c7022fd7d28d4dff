"""API subpackage for the message service.

Routes are thin layers over ``InferenceOrchestrator``; orchestration errors
are translated to HTTP status codes here and nowhere else.
"""
