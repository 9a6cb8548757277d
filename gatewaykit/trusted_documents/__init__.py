"""Trusted (persisted) GraphQL documents: configuration, stores, protocols and plugin."""