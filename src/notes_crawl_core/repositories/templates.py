from __future__ import annotations

import json

import psycopg

from notes_crawl_core.templates import FormConfig, TemplateConfig


class TemplateRepository:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def get_template(self, name: str) -> TemplateConfig | None:
        row = self._conn.execute(
            """
            select template_name, meta_fields, search_results_formula, description_formula
            from crawl_templates
            where template_name=%s
            """,
            (name,),
        ).fetchone()
        if not row:
            return None
        form_rows = self._conn.execute(
            """
            select form_alias, fields_to_index, search_results_formula, description_formula
            from crawl_template_forms
            where template_name=%s
            order by position, form_alias
            """,
            (name,),
        ).fetchall()
        return TemplateConfig(
            name=row[0],
            meta_fields=tuple(row[1] or []),
            search_results_formula=row[2],
            description_formula=row[3],
            forms=tuple(
                FormConfig(
                    alias=r[0],
                    fields_to_index=tuple(r[1] or []),
                    search_results_formula=r[2],
                    description_formula=r[3],
                )
                for r in form_rows
            ),
        )

    def upsert_template(self, template: TemplateConfig) -> None:
        """
        Replace-all semantics for a template and its forms.
        """
        with self._conn.transaction():
            self._conn.execute(
                """
                insert into crawl_templates(
                  template_name, meta_fields, search_results_formula, description_formula, updated_at
                ) values (%s, %s::jsonb, %s, %s, now())
                on conflict (template_name) do update set
                  meta_fields = excluded.meta_fields,
                  search_results_formula = excluded.search_results_formula,
                  description_formula = excluded.description_formula,
                  updated_at = now()
                """,
                (
                    template.name,
                    json.dumps(list(template.meta_fields)),
                    template.search_results_formula,
                    template.description_formula,
                ),
            )
            self._conn.execute("delete from crawl_template_forms where template_name=%s", (template.name,))
            for position, form in enumerate(template.forms):
                self._conn.execute(
                    """
                    insert into crawl_template_forms(
                      template_name, form_alias, position,
                      fields_to_index, search_results_formula, description_formula
                    ) values (%s, %s, %s, %s::jsonb, %s, %s)
                    """,
                    (
                        template.name,
                        form.alias,
                        position,
                        json.dumps(list(form.fields_to_index)),
                        form.search_results_formula,
                        form.description_formula,
                    ),
                )
        self._conn.commit()
