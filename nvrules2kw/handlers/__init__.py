"""Handlers that turn NeuVector rule criteria into Kubewarden policy settings."""