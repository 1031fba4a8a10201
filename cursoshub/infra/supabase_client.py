"""
Clients Supabase construits explicitement par la racine de composition (container).
- anon: lecture publique et vérification des tokens (supabase.auth.get_user)
- service: service-role (bypass RLS), réservé aux écritures post-paiement
- for_user(token): client 'anon' authentifié, RLS actif, pour agir au nom de l'utilisateur
Chaque requête PostgREST est bornée par `timeout` (secondes).
"""
from typing import Optional

import httpx
from postgrest.exceptions import APIError
from supabase import ClientOptions, create_client, Client

# Échecs d'accès PostgREST: erreur applicative ou réseau (connexion, timeout)
STORE_FAILURES = (APIError, httpx.HTTPError)


class SupabaseClients:
    def __init__(self, url: str, anon_key: str, service_key: str = "", timeout: int = 10):
        if not url or not anon_key:
            raise RuntimeError("SUPABASE_URL et SUPABASE_ANON_KEY sont requis")
        self._url = url
        self._anon_key = anon_key
        self.timeout = timeout
        self.anon: Client = self._create(anon_key)
        self._service: Optional[Client] = self._create(service_key) if service_key else None

    def _create(self, key: str) -> Client:
        return create_client(self._url, key, options=ClientOptions(postgrest_client_timeout=self.timeout))

    @property
    def service(self) -> Client:
        if self._service is None:
            raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour le client service-role")
        return self._service

    def for_user(self, user_token: str) -> Client:
        """
        Client Supabase 'anon' avec auth utilisateur (RLS actif).
        À utiliser pour opérer au nom d'un utilisateur sans polluer le client partagé.
        """
        if not user_token:
            raise ValueError("user_token is required")
        client = self._create(self._anon_key)
        client.postgrest.auth(user_token)
        return client
