from urllib.parse import quote

from pydantic_settings import BaseSettings, SettingsConfigDict

from citeview.markup.diagrams import DiagramConfig
from citeview.preview.controller import PreviewMessages


class Settings(BaseSettings):
    app_name: str = "Citeview API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    # Preview documents are served by the knowledge-base API, not by this service.
    api_host: str = "http://localhost:9380"
    document_url_template: str = "{api_host}/v1/document/get/{doc_id}"
    http_timeout_seconds: float = 30.0
    max_previews: int = 64

    searching_placeholder: str = "Searching..."
    pdf_load_error_message: str = "Failed to load PDF file"
    docx_fetch_error_message: str = "Failed to fetch DOCX file"
    docx_conversion_error_message: str = "Failed to convert DOCX file"

    # Empty disables diagram rendering; mermaid fences then stay as code blocks.
    diagram_renderer_url: str = ""
    diagram_timeout_seconds: float = 10.0
    diagram_theme: str = "default"
    diagram_security_level: str = "loose"
    diagram_html_labels: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def document_url(self, doc_id: str) -> str:
        return self.document_url_template.format(
            api_host=self.api_host.rstrip("/"),
            doc_id=quote(doc_id, safe=""),
        )

    def diagram_config(self) -> DiagramConfig:
        return DiagramConfig(
            theme=self.diagram_theme,
            security_level=self.diagram_security_level,
            html_labels=self.diagram_html_labels,
        )

    def preview_messages(self) -> PreviewMessages:
        return PreviewMessages(
            pdf_load_error=self.pdf_load_error_message,
            docx_fetch_error=self.docx_fetch_error_message,
            docx_conversion_error=self.docx_conversion_error_message,
        )


settings = Settings()
