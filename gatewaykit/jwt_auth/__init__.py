"""JWT authentication configuration and cached JWKS key-set providers."""