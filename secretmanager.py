from google.cloud import secretmanager


def get_secret(secret_id):
    """Return the payload of a Secret Manager version, e.g. projects/p/secrets/jwt-secret/versions/latest."""
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": secret_id})
    return response.payload.data.decode("UTF-8")
