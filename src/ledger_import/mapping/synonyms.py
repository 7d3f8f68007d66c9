"""
Column naming conventions per record kind.

POSITIONAL layouts use fixed column letters; LABELED layouts are matched
against synonym lists (normalized with `normalize_key` before comparison).
The order of each synonym list is irrelevant; the order of the header
columns decides ties.
"""

from ..schemas.layout import LogicalField, RecordKind

F = LogicalField

# Legacy receipt exports: A-J
RECEIPT_POSITIONS: dict[LogicalField, str] = {
    F.DATE: "A",
    F.RECEIPT_ID: "B",
    F.SUPPLIER: "C",
    F.CATEGORY: "D",
    F.ITEM: "E",
    F.DESCRIPTION: "F",
    F.BASE_AMOUNT: "G",
    F.RATE_PRIMARY: "H",
    F.RATE_SECONDARY: "I",
    F.PAID_FLAG: "J",
}

# Legacy ledger exports: A-H
LEDGER_POSITIONS: dict[LogicalField, str] = {
    F.DATE: "A",
    F.TYPE: "B",
    F.BANK: "C",
    F.CATEGORY: "D",
    F.ITEM: "E",
    F.DESCRIPTION: "F",
    F.AMOUNT: "G",
    F.PAID_FLAG: "H",
}

RECEIPT_SYNONYMS: dict[LogicalField, list[str]] = {
    F.DATE: ["issue_date", "data_emissao", "data emissao", "data", "emissao", "date"],
    F.RECEIPT_ID: ["id", "numero", "número", "recibo", "receipt", "receipt_id"],
    F.SUPPLIER: ["fornecedor", "supplier", "emitente", "cliente"],
    F.CATEGORY: ["categoria", "categoria_contabil", "categoria contabil", "category"],
    F.ITEM: ["conta_contabil", "conta contabil", "conta", "item", "subcategoria"],
    F.DESCRIPTION: ["description", "descricao", "descrição", "observacao", "observação"],
    F.BASE_AMOUNT: ["base_amount", "base", "valor_base", "valor base", "valor"],
    F.RATE_PRIMARY: [
        "irs_rate",
        "irs%",
        "irs %",
        "irs_percent",
        "irs percent",
        "inss_rate",
        "inss%",
        "inss %",
        "primary_rate",
    ],
    F.RATE_SECONDARY: [
        "iva_rate",
        "iva%",
        "iva %",
        "iva_percent",
        "iva percent",
        "irpf_rate",
        "irpf%",
        "irpf %",
        "secondary_rate",
    ],
    F.PAID_FLAG: ["is_paid", "pago", "status", "paid"],
}

LEDGER_SYNONYMS: dict[LogicalField, list[str]] = {
    F.DATE: ["data_competencia", "data", "competencia", "competência", "date"],
    F.TYPE: ["tipo", "tipo_transacao", "tipo transacao", "tipo_transação", "type"],
    F.BANK: ["banco", "forma_pagamento", "forma pagamento", "forma_pagamento_id", "forma", "bank"],
    F.CATEGORY: ["categoria", "categoria_contabil", "categoria contabil", "category"],
    F.ITEM: ["conta_contabil", "conta contabil", "conta", "item"],
    F.DESCRIPTION: ["descricao", "description", "descrição", "historico", "histórico"],
    F.AMOUNT: ["valor", "amount"],
    F.PAID_FLAG: ["status", "pago", "is_paid", "paid"],
}


def positions_for(kind: RecordKind) -> dict[LogicalField, str]:
    """Fixed column letters for a record kind."""
    return RECEIPT_POSITIONS if kind == RecordKind.RECEIPTS else LEDGER_POSITIONS


def synonyms_for(kind: RecordKind) -> dict[LogicalField, list[str]]:
    """Header synonyms for a record kind."""
    return RECEIPT_SYNONYMS if kind == RecordKind.RECEIPTS else LEDGER_SYNONYMS
